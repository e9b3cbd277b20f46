"""
Test Suite for trialplan

Unit tests covering:
- Endpoint records and validation results
- Classification and statistical test selection
- Consistency checks and analysis populations
- Analysis plan sections and assembly
"""
