from django.apps import AppConfig


class MbcbConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "mbcb"
    verbose_name = "MBCB Quotations"
