"""HTML served to the browser during the login round trip."""
