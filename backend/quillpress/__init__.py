"""QuillPress blog backend: ranked post search and threaded comments."""

__version__ = "0.1.0"
