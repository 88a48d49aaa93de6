"""Feature modules composing the :mod:`ragsync` sync engine."""
