TEST_BUCKET_NAME = "some-bucket"
TEST_CATEGORIES = ["TQM", "RD_Nexus", "DCO", "KPI"]
TEST_MAX_UPLOAD_SIZE_BYTES = 1024 * 1024

TEST_PDF_NAME = "inspection report.pdf"
TEST_PDF_CONTENT = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\ntrailer\n<</Root 1 0 R>>\n%%EOF"
TEST_PDF_CONTENT_TYPE = "application/pdf"
