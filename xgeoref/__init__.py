"""Top-level package for xgeoref."""

from xgeoref.adjustment import DuplicatedIdentifierError, GridAdjustment  # noqa: F401
from xgeoref.axis import AxisKind, abbreviation  # noqa: F401
from xgeoref.cache import SHARED_GRID_CACHE, GridCache  # noqa: F401
from xgeoref.convention import (  # noqa: F401
    Convention,
    UniversalConvention,
    find_convention,
    register_convention,
    unregister_convention,
)
from xgeoref.crs import CompoundCRS, merge_crs  # noqa: F401
from xgeoref.dates import normalize_dates  # noqa: F401
from xgeoref.decoder import Decoder, GeoreferencingAccessor, open_dataset  # noqa: F401
from xgeoref.grid import Axis, Grid, GridGeometry  # noqa: F401
from xgeoref.linearizer import CannotInjectComponentError, Linearizer  # noqa: F401
from xgeoref.listeners import Diagnostic, StoreListeners  # noqa: F401
from xgeoref.localization import LocalizationGridError  # noqa: F401

__version__ = "0.1.0"
