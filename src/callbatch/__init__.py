"""
CallBatch - Sequential batch caller for on-chain contract targets.

A CLI tool that fires the same contract call against an ordered list of
targets, one at a time, with pacing, live progress and cooperative stop.
"""

__version__ = "0.1.0"
__app_name__ = "callbatch"
