"""TableRewards loyalty API."""
