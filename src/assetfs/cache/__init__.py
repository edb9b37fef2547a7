"""Local cache of remote projects and their asset trees."""
