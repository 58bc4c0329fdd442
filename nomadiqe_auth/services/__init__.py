"""Service components for identity, credentials, tokens and onboarding."""
