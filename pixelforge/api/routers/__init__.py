"""API routers: generations, jobs, accounts, admin."""
