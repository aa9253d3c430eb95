"""Root ens-indexer package.

Contains software versions and other metadata.
"""

import importlib.metadata as _pkg

__version__ = _pkg.version('ens-indexer')
