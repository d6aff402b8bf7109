"""
Adapter for HTTP framework (FastAPI).
Isolates FastAPI-specific imports to make library replacement easier.
"""
from fastapi import FastAPI, HTTPException, Query, Body, Path, Request, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response


class HTTPFrameworkAdapter:
    """Adapter for HTTP framework operations."""

    def __init__(self):
        self.FastAPI = FastAPI
        self.HTTPException = HTTPException
        self.Query = Query
        self.Body = Body
        self.Path = Path
        self.Request = Request
        self.Depends = Depends
        self.RequestValidationError = RequestValidationError
        self.JSONResponse = JSONResponse
        self.Response = Response

    def create_app(self, *args, **kwargs):
        """Create a FastAPI application instance."""
        return self.FastAPI(*args, **kwargs)
