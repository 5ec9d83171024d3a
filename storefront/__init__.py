"""Lewis storefront: cart, checkout and payment hand-off over the store API."""
