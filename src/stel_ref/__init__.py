"""Reference tree-walking interpreter for StelLang."""

import logging

logging.getLogger(__name__).addHandler(logging.NullHandler())
