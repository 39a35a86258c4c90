"""configuration file for Sphinx documentation."""

import pathlib
import sys

src_path = pathlib.Path(__file__).parent.parent.parent / "src"
sys.path.insert(0, str(src_path))


project = "wearday"
copyright = "2026, wearday developers"
author = "wearday developers"

release = "0.1.0"


extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.autosummary",
    "sphinx.ext.viewcode",
    "sphinx.ext.napoleon",
    "myst_nb",
    "sphinx.ext.intersphinx",
    "sphinx_copybutton",
]
autosummary_generate = True

source_suffix = {
    ".rst": "restructuredtext",
    ".md": "myst-nb",
}

html_theme = "furo"

html_domain_indices = ["py-modindex"]
modindex_common_prefix = ["wearday."]


napoleon_google_docstring = True
napoleon_include_init_with_doc = False
napoleon_include_private_with_doc = False


autodoc_default_options = {
    "members": True,
    "undoc-members": True,
    "show-inheritance": True,
}

nb_execution_mode = "off"
myst_enable_extensions = [
    "colon_fence",
    "deflist",
]

intersphinx_mapping = {
    "python": ("https://docs.python.org/3", None),
    "numpy": ("https://numpy.org/doc/stable/", None),
    "polars": ("https://docs.pola.rs/api/python/stable/", None),
}
