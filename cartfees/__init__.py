"""
cartfees — idempotent cart fee computation.

    from cartfees import cart as K      # Cart snapshot, fees
    from cartfees import rules as R     # Rule tables and loading
    from cartfees import pipeline as P  # Stage graph
    from cartfees import engine as E    # Orchestrator, re-entrancy guard

    engine = E.FeeEngine(R.default_rules("USD"))
    result = await engine.invoke(cart, customer, R.CREDIT_CARD_METHOD)
"""

from cartfees import money
from cartfees import cart
from cartfees import rules
from cartfees import pipeline
from cartfees import engine
from cartfees._log import configure_logging, get_logger
from cartfees.errors import FeeError, ConfigurationError, InputError

__version__ = "0.1.0"

__all__ = (
    "money",
    "cart",
    "rules",
    "pipeline",
    "engine",
    "configure_logging",
    "get_logger",
    "FeeError",
    "ConfigurationError",
    "InputError",
)
