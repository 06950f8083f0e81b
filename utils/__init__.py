"""
Utility package setup.

Enables pandas Copy-on-Write globally to cut down on unnecessary DataFrame duplication
while tagging per-configuration metric and weight blocks.
"""

import pandas as pd

# Reduce implicit copies across the search.
pd.options.mode.copy_on_write = True
