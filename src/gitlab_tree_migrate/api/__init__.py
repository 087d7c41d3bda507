"""GitLab API clients and the source/destination facades."""
