"""
Identity and onboarding service for the Nomadiqe marketplace.

This package owns the parts of the platform that decide *who* a user is and
*how far along* they are in getting set up:

- :mod:`.services.tokens` issues and consumes short-lived, single-use,
  purpose-scoped secrets (email verification codes, password reset and
  add-password tokens).
- :mod:`.services.credentials` owns the durable account record, including the
  optional password hash and the onboarding state.
- :mod:`.services.identity_links` records which external identity providers
  are attached to which account.
- :mod:`.services.sessions` mints and refreshes the signed session token,
  always reconciling its cached snapshot against storage.
- :mod:`.services.onboarding` defines the per-role onboarding steps and the
  rules for moving between them.
- :mod:`.controllers` and :mod:`.routes` compose those into the JSON API used
  by the web client.
"""
