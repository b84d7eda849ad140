"""SecretShare: anonymous secret sharing behind local and federated login."""
