"""
Test suite for the clinic appointment service.

Service-level scheduling tests plus API tests driven through FastAPI's TestClient.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
