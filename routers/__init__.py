from routers.base import RouterBase, amount_out_minimum, resolve_encode_options
from routers.universal_router import UniversalRouter

__all__ = [
    "RouterBase",
    "UniversalRouter",
    "amount_out_minimum",
    "resolve_encode_options",
]
