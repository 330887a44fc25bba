TEST_BUCKET_NAME = "test-file-gateway-bucket"
TEST_APP_ID = "test-app"
TEST_MASTER_KEY = "test-master-key"
