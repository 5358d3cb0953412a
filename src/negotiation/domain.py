"""Negotiation bounded context — orders negotiated between a buyer and a supplier.

Handles the order aggregate (items, shipment plans and the proposal log),
its negotiation state machine, and the commands that drive it.
"""

from protean.domain import Domain

from negotiation.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

# Get logger for this module
logger = get_logger(__name__)

# Domain Composition Root
negotiation = Domain(name="negotiation")
