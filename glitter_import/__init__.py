"""CSV bulk importer for diamond-painting projects.

Entry points:
- ``glitter_import.services.orchestrator.import_from_csv`` (library)
- ``python -m glitter_import.cli FILE`` (command line)
"""

__version__ = "0.1.0"
