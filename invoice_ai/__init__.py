"""AI invoice generator: free-form text to a computed, numerically consistent invoice."""
