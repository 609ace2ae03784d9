"""
Tests for the main module.
"""


def test_read_root(client):
    """Test the root endpoint returns the expected response."""
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "IEEE Paper Formatter API"}


def test_docs_are_mounted_under_api_prefix(client):
    assert client.get("/api/v1/docs").status_code == 200
    assert client.get("/openapi.json").status_code == 200
