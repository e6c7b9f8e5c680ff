"""
bucket-sync: copy the objects missing from one bucket into another.

Lists a source bucket, diffs it against a destination bucket and moves only the
missing objects through a local staging directory with bounded concurrency.
"""

__version__ = "0.1.0"
