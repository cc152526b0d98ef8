"""Token, REST and firehose services."""
