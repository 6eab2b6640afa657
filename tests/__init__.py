"""
Test suite for the labs router.

This package contains:
- unit/: route source, cache, dispatch, forwarding and rewrite logic
- integration/: the full request pipeline through the Flask test client
"""
