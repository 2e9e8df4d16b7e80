"""HTTP layer: function routes, dependencies and error rendering."""
