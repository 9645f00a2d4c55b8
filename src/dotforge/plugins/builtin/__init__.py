"""Plugins shipped with dotforge, registered under the ``dotforge.plugins`` entry point group."""
