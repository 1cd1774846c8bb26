"""
seqframe HTTP application.
"""
