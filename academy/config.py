from common import BaseServiceSettings, make_get_settings


class Settings(BaseServiceSettings):
	app_name: str = "EnglishMaster Enrollments"
	run_migrations_on_startup: bool = True

	# Identity
	access_token_expire_minutes: int = 15
	refresh_token_expire_days: int = 30
	password_reset_expire_minutes: int = 30
	login_path: str = "/login"
	federated_tokeninfo_url: str = "https://oauth2.googleapis.com/tokeninfo"
	federated_client_id: str | None = None
	federated_timeout_seconds: float = 10.0

	# Branding used on invoices and in the checkout widget
	brand_name: str = "EnglishMaster"
	support_email: str = "support@englishmaster.com"
	currency: str = "INR"

	# Razorpay; without credentials a simulated gateway is used
	razorpay_key_id: str | None = None
	razorpay_key_secret: str | None = None
	razorpay_webhook_secret: str | None = None
	payments_simulation_secret: str = "simulation-secret"

	# Object storage (MinIO / S3) for invoices
	s3_endpoint: str | None = None
	s3_region: str | None = None
	s3_access_key: str | None = None
	s3_secret_key: str | None = None
	s3_use_ssl: bool = False
	s3_bucket_invoices: str = "invoices"
	s3_presign_expire_seconds: int = 3600

	# Notifications service (email / WhatsApp)
	notifications_service_url: str | None = None
	notifications_internal_token: str | None = None
	notifications_timeout_seconds: float = 10.0
	notifications_max_concurrency: int = 4
	admin_email: str = "admin@englishmaster.com"
	admin_phone: str = "+1234567890"


get_settings = make_get_settings(Settings)
