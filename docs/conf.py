# Sphinx configuration for the ollcube API reference.

import os
import sys

# autodoc imports `ollcube` from the repository root
sys.path.insert(0, os.path.abspath(".."))

project = "ollcube"
author = "ollcube developers"
copyright = "2026, ollcube developers"
release = "0.1.0"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "sphinx.ext.intersphinx",
    "sphinx.ext.viewcode",
    "myst_parser",
]

templates_path = ["_templates"]
exclude_patterns = ["_build", "Thumbs.db", ".DS_Store"]

autodoc_default_options = {
    "members": True,
    "show-inheritance": True,
    "member-order": "bysource",
}
autodoc_typehints = "description"

napoleon_google_docstring = True
napoleon_numpy_docstring = False

source_suffix = {
    ".rst": "restructuredtext",
    ".md": "markdown",
}

intersphinx_mapping = {
    "python": ("https://docs.python.org/3", None),
    "numpy": ("https://numpy.org/doc/stable/", None),
    "jax": ("https://jax.readthedocs.io/en/latest/", None),
}

html_theme = "furo"
html_title = "ollcube"

autodoc_mock_imports = ["chex", "termcolor", "tabulate", "tqdm"]

try:
    import jax  # noqa: F401
except ImportError:
    autodoc_mock_imports.extend(["jax", "jaxlib"])
