"""Entity repositories over the single DynamoDB table."""
