"""
admin.py
─────────────────────────────────────────────────────────────────────
Django admin for federation staff. Users and clubs are deactivated,
never deleted, so the default list filters show active rows first.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from .models import (
    AdminMessage, AdminMessageRecipient, Announcement, Banner, Club, CoachSearch, Court, CourtReservation,
    DigitalCredential, Expense, FinderPreference, Match, MatchRequest, Message, MicrositeFlag,
    Notification, Payment, PaymentLog, Ranking, Tournament, TournamentRegistration, TournamentTeam,
    TournamentTeamMember, User,
)

# ── Site branding ────────────────────────────────────────────────────
admin.site.site_header = _("Pickleball Sports Federation")
admin.site.site_title  = _("Federation admin")
admin.site.index_title = _("Home")


# ════════════════════════════════════════════════════════════════════
#  Users
# ════════════════════════════════════════════════════════════════════

@admin.register(User)
class FederationUserAdmin(UserAdmin):
    list_display  = ("username", "email", "full_name", "type_badge", "state", "membership_status", "is_active")
    list_filter   = ("is_active", "user_type", "membership_status", "microsite_status", "email_verified", "state")
    search_fields = ("username", "email", "full_name", "curp", "business_name")
    ordering      = ("-date_joined",)
    readonly_fields = ("date_joined", "last_login", "login_attempts", "locked_until")

    fieldsets = (
        (_("Login"),       {"fields": ("username", "email", "password")}),
        (_("Profile"),     {"fields": ("full_name", "date_of_birth", "gender", "phone", "bio",
                                       "user_type", "skill_level", "curp", "rfc")}),
        (_("Location"),    {"fields": ("state", "city", "address", "latitude", "longitude")}),
        (_("Business"),    {"fields": ("business_name", "contact_person", "job_title", "website", "club",
                                       "microsite_status")}),
        (_("Coaching"),    {"fields": ("coaching_experience", "specializations", "hourly_rate",
                                       "available_for_lessons", "is_findable", "rating", "reviews_count")}),
        (_("Membership"),  {"fields": ("membership_status", "membership_expires_at")}),
        (_("Access"),      {"fields": ("is_active", "is_staff", "is_superuser", "is_verified",
                                       "email_verified", "groups", "user_permissions")}),
        (_("Security"),    {"fields": ("login_attempts", "locked_until", "date_joined", "last_login")}),
    )
    add_fieldsets = (
        (None, {"classes": ("wide",), "fields": (
            "username", "email", "user_type", "password1", "password2",
        )}),
    )

    def type_badge(self, obj):
        colors = {
            "player":  "#0d6efd",
            "coach":   "#fd7e14",
            "club":    "#198754",
            "partner": "#6f42c1",
            "state":   "#20c997",
            "admin":   "#dc3545",
        }
        return format_html(
            '<span style="background:{};color:#fff;padding:2px 7px;border-radius:4px;font-size:11px">{}</span>',
            colors.get(obj.user_type, "#999"), obj.get_user_type_display(),
        )
    type_badge.short_description = _("type")


# ════════════════════════════════════════════════════════════════════
#  Clubs & courts
# ════════════════════════════════════════════════════════════════════

class CourtInline(admin.TabularInline):
    model  = Court
    extra  = 0
    fields = ("name", "court_type", "surface", "has_lighting", "hourly_rate", "is_available")


@admin.register(Club)
class ClubAdmin(admin.ModelAdmin):
    list_display  = ("name", "owner", "state", "city", "club_type", "membership_status", "is_verified", "is_active")
    list_filter   = ("is_active", "is_verified", "club_type", "membership_status", "state")
    search_fields = ("name", "city", "owner__username", "owner__email")
    raw_id_fields = ("owner",)
    inlines       = [CourtInline]


@admin.register(CourtReservation)
class CourtReservationAdmin(admin.ModelAdmin):
    list_display   = ("court", "user", "start_time", "end_time", "final_amount", "payment_status", "status")
    list_filter    = ("status", "payment_status", "booking_source", "club")
    search_fields  = ("user__username", "court__name", "club__name")
    date_hierarchy = "reservation_date"
    raw_id_fields  = ("user", "court", "club", "cancelled_by")


# ════════════════════════════════════════════════════════════════════
#  Tournaments & rankings
# ════════════════════════════════════════════════════════════════════

class RegistrationInline(admin.TabularInline):
    model         = TournamentRegistration
    extra         = 0
    raw_id_fields = ("player", "partner")
    fields        = ("player", "partner", "category", "skill_level", "status", "payment_status",
                     "final_position", "points_earned")


@admin.register(Tournament)
class TournamentAdmin(admin.ModelAdmin):
    list_display   = ("name", "tournament_type", "category", "state", "start_date", "status", "organizer")
    list_filter    = ("status", "tournament_type", "category", "state")
    search_fields  = ("name", "city", "organizer__username")
    date_hierarchy = "start_date"
    raw_id_fields  = ("organizer", "club", "head_referee")
    filter_horizontal = ("assistant_referees",)
    inlines        = [RegistrationInline]


class TeamMemberInline(admin.TabularInline):
    model         = TournamentTeamMember
    extra         = 0
    raw_id_fields = ("user",)


@admin.register(TournamentTeam)
class TournamentTeamAdmin(admin.ModelAdmin):
    list_display  = ("team_name", "team_number", "tournament", "captain", "status", "payment_status",
                     "final_position", "points")
    list_filter   = ("status", "payment_status", "category")
    search_fields = ("team_name", "captain__username", "tournament__name")
    raw_id_fields = ("tournament", "captain")
    inlines       = [TeamMemberInline]


@admin.register(Match)
class MatchAdmin(admin.ModelAdmin):
    list_display  = ("tournament", "match_number", "round_name", "player1", "player2", "winner", "status")
    list_filter   = ("status", "match_format")
    raw_id_fields = ("tournament", "court", "player1", "player2", "player1_partner", "player2_partner",
                     "winner", "referee")


@admin.register(Ranking)
class RankingAdmin(admin.ModelAdmin):
    list_display  = ("user", "category", "skill_level", "state", "position", "points", "ranking_period", "is_current")
    list_filter   = ("is_current", "category", "skill_level", "ranking_period")
    search_fields = ("user__username", "user__full_name", "state")
    raw_id_fields = ("user",)


@admin.register(DigitalCredential)
class DigitalCredentialAdmin(admin.ModelAdmin):
    list_display    = ("credential_number", "player_name", "nrtp_level", "state_affiliation",
                       "affiliation_status", "expiry_date", "verification_count")
    list_filter     = ("affiliation_status", "club_status", "state_affiliation")
    search_fields   = ("credential_number", "verification_code", "player_name", "user__email")
    readonly_fields = ("credential_number", "verification_code", "digital_signature", "qr_jwt_token",
                       "verification_log", "verification_count", "last_verified")
    raw_id_fields   = ("user",)


# ════════════════════════════════════════════════════════════════════
#  Communication
# ════════════════════════════════════════════════════════════════════

@admin.register(AdminMessage)
class AdminMessageAdmin(admin.ModelAdmin):
    list_display    = ("title", "message_type", "priority", "target_audience", "status",
                       "total_recipients", "sent_at")
    list_filter     = ("status", "message_type", "priority", "target_audience")
    search_fields   = ("title", "content")
    readonly_fields = ("total_recipients", "sent_count", "read_count", "click_count", "sent_at")


@admin.register(AdminMessageRecipient)
class AdminMessageRecipientAdmin(admin.ModelAdmin):
    list_display  = ("message", "recipient_email", "recipient_type", "delivery_status", "read_at", "is_dismissed")
    list_filter   = ("delivery_status", "recipient_type", "is_dismissed")
    search_fields = ("recipient_email", "recipient_name")
    raw_id_fields = ("message", "recipient")


@admin.register(Announcement)
class AnnouncementAdmin(admin.ModelAdmin):
    list_display  = ("title", "category", "priority", "status", "target_audience", "is_pinned",
                     "publish_date", "view_count")
    list_filter   = ("status", "category", "priority", "is_pinned")
    search_fields = ("title", "content")


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display  = ("subject", "sender", "recipient", "message_type", "status", "is_read", "created_at")
    list_filter   = ("message_type", "status", "category", "sender_type")
    search_fields = ("subject", "sender__username", "recipient__username")
    raw_id_fields = ("sender", "recipient")


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display  = ("user", "type", "title", "priority", "is_read", "created_at")
    list_filter   = ("type", "priority", "is_read")
    search_fields = ("user__username", "title")
    raw_id_fields = ("user",)


# ════════════════════════════════════════════════════════════════════
#  Money
# ════════════════════════════════════════════════════════════════════

class PaymentLogInline(admin.TabularInline):
    model           = PaymentLog
    extra           = 0
    can_delete      = False
    readonly_fields = ("action", "result", "amount", "reference", "raw_response", "created_at")


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display    = ("id", "user", "amount_display", "payment_type", "status", "processed_at")
    list_filter     = ("status", "payment_type", "currency")
    search_fields   = ("user__username", "user__email", "gateway_payment_id")
    readonly_fields = ("gateway_payment_id", "gateway_charge_id", "processed_at", "refunded_at")
    raw_id_fields   = ("user", "registration", "reservation")
    inlines         = [PaymentLogInline]

    def amount_display(self, obj):
        return f"{obj.amount:,.2f} {obj.currency}"
    amount_display.short_description = _("amount")


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display   = ("description", "amount", "category", "club", "tournament", "status", "expense_date")
    list_filter    = ("status", "category")
    search_fields  = ("description", "notes")
    date_hierarchy = "expense_date"
    raw_id_fields  = ("club", "tournament", "created_by", "approved_by")


# ════════════════════════════════════════════════════════════════════
#  Finder
# ════════════════════════════════════════════════════════════════════

@admin.register(FinderPreference)
class FinderPreferenceAdmin(admin.ModelAdmin):
    list_display    = ("user", "match_type", "search_radius_km", "is_active", "searches_count", "matches_made")
    list_filter     = ("is_active", "match_type", "contact_method")
    search_fields   = ("user__username", "user__email")
    raw_id_fields   = ("user",)
    readonly_fields = ("searches_count", "requests_sent", "requests_received", "matches_made", "last_search_at")


@admin.register(MatchRequest)
class MatchRequestAdmin(admin.ModelAdmin):
    list_display  = ("sender", "receiver", "match_type", "status", "proposed_time", "created_at")
    list_filter   = ("status", "match_type")
    search_fields = ("sender__username", "receiver__username")
    raw_id_fields = ("sender", "receiver", "club")


@admin.register(CoachSearch)
class CoachSearchAdmin(admin.ModelAdmin):
    list_display  = ("user", "state", "city", "is_active", "results_count", "last_run_at")
    list_filter   = ("is_active", "state")
    raw_id_fields = ("user",)


# ════════════════════════════════════════════════════════════════════
#  Banners & microsites
# ════════════════════════════════════════════════════════════════════

@admin.register(Banner)
class BannerAdmin(admin.ModelAdmin):
    list_display    = ("title", "display_type", "target_audience", "position", "is_featured", "is_active",
                       "view_count", "click_count", "start_date", "end_date")
    list_filter     = ("is_active", "is_featured", "display_type", "target_audience")
    list_editable   = ("position", "is_active")
    search_fields   = ("title", "subtitle", "notes")
    raw_id_fields   = ("tournament", "club", "created_by")
    readonly_fields = ("view_count", "click_count")


@admin.register(MicrositeFlag)
class MicrositeFlagAdmin(admin.ModelAdmin):
    list_display  = ("microsite", "flag_type", "severity", "status", "action_taken", "created_at")
    list_filter   = ("status", "severity", "flag_type")
    search_fields = ("microsite__username", "microsite__business_name", "reason")
    raw_id_fields = ("microsite", "flagged_by", "resolved_by")
