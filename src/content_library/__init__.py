"""content-library: install, update and remove content packs in a tenant's glossary."""

__version__ = "0.3.0"
