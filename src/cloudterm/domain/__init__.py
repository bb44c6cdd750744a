"""Core domain models shared by the resolver, shell and bridge layers."""
