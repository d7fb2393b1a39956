"""
ttp-consent: Consent resolution against a trusted third party

Asks a gICS consent authority whether a subject consented to research use,
converts broad consent documents to MII form and decides single provisions
as of a date.
"""

__version__ = "0.1.0"
