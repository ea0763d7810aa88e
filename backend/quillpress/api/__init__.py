"""HTTP routers, mounted under ``/api`` by :mod:`quillpress.main`."""
