"""Portal login service: OAuth code login -> local user -> permissions -> signed session token."""
