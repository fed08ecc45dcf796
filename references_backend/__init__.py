"""Backend service for cataloging and searching UI references."""
