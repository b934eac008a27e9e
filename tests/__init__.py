"""Unit test package for xgeoref."""
from xarray.core.options import set_options

set_options(warn_for_unclosed_files=False)
