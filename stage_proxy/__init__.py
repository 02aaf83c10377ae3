"""Stage file proxy: serve missing uploads from a production origin."""
