"""Write coordination, commit batching and read services."""
