"""Commerce domain — composition root.

Every aggregate, command, handler and repository in the package registers
itself against this ``Domain`` instance. Modules are discovered by
``commerce.init()``, which traverses the package.
"""

from protean.domain import Domain

from commerce.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

commerce = Domain(name="commerce")
