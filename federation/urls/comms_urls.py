"""
federation/urls/comms_urls.py
namespace = "comms"

Admin broadcasts, announcements, direct messages and notifications.
"""
from django.urls import path

from ..views.admin_message_views import (
    AdminMessageAnalyticsView,
    AdminMessageCancelView,
    AdminMessageClickView,
    AdminMessageDetailView,
    AdminMessageDismissView,
    AdminMessageListView,
    AdminMessageOverviewView,
    AdminMessagePreviewView,
    AdminMessageReadView,
    AdminMessageRecipientsView,
    AdminMessageSendView,
    MessageTemplatesView,
    MyAdminMessagesView,
    ProcessScheduledView,
)
from ..views.announcement_views import (
    AnnouncementAnalyticsView,
    AnnouncementArchiveView,
    AnnouncementClickView,
    AnnouncementDetailView,
    AnnouncementListView,
    AnnouncementPinView,
    AnnouncementPublishView,
    AnnouncementViewView,
    PublicAnnouncementListView,
)
from ..views.message_views import (
    BroadcastDirectMessageView,
    MessageArchiveView,
    MessageDetailView,
    MessageListView,
    MessageReadAllView,
    MessageReadView,
    MessageStarView,
    MessageStatsView,
    SentMessagesView,
    SystemMessageView,
    UnreadCountView,
)
from ..views.notification_views import (
    NotificationDetailView,
    NotificationListView,
    NotificationPreferencesView,
    NotificationReadAllView,
    NotificationReadView,
    NotificationStatsView,
    SendNotificationView,
    SystemBroadcastNotificationView,
)

app_name = "comms"

urlpatterns = [
    # ── Admin broadcasts ───────────────────────────────────────────
    path("admin-messages/",                         AdminMessageListView.as_view(),       name="admin-message-list"),
    path("admin-messages/overview/",                AdminMessageOverviewView.as_view(),   name="admin-message-overview"),
    path("admin-messages/templates/",               MessageTemplatesView.as_view(),       name="admin-message-templates"),
    path("admin-messages/process-scheduled/",       ProcessScheduledView.as_view(),       name="admin-message-process"),
    path("admin-messages/inbox/",                   MyAdminMessagesView.as_view(),        name="admin-message-inbox"),
    path("admin-messages/<int:pk>/",                AdminMessageDetailView.as_view(),     name="admin-message-detail"),
    path("admin-messages/<int:pk>/preview/",        AdminMessagePreviewView.as_view(),    name="admin-message-preview"),
    path("admin-messages/<int:pk>/send/",           AdminMessageSendView.as_view(),       name="admin-message-send"),
    path("admin-messages/<int:pk>/cancel/",         AdminMessageCancelView.as_view(),     name="admin-message-cancel"),
    path("admin-messages/<int:pk>/analytics/",      AdminMessageAnalyticsView.as_view(),  name="admin-message-analytics"),
    path("admin-messages/<int:pk>/recipients/",     AdminMessageRecipientsView.as_view(), name="admin-message-recipients"),
    path("admin-messages/<int:pk>/read/",           AdminMessageReadView.as_view(),       name="admin-message-read"),
    path("admin-messages/<int:pk>/click/",          AdminMessageClickView.as_view(),      name="admin-message-click"),
    path("admin-messages/<int:pk>/dismiss/",        AdminMessageDismissView.as_view(),    name="admin-message-dismiss"),

    # ── Announcements ──────────────────────────────────────────────
    path("announcements/",                      PublicAnnouncementListView.as_view(), name="announcement-board"),
    path("announcements/manage/",               AnnouncementListView.as_view(),       name="announcement-list"),
    path("announcements/manage/<int:pk>/",      AnnouncementDetailView.as_view(),     name="announcement-detail"),
    path("announcements/<int:pk>/",             AnnouncementViewView.as_view(),       name="announcement-view"),
    path("announcements/<int:pk>/click/",       AnnouncementClickView.as_view(),      name="announcement-click"),
    path("announcements/<int:pk>/publish/",     AnnouncementPublishView.as_view(),    name="announcement-publish"),
    path("announcements/<int:pk>/archive/",     AnnouncementArchiveView.as_view(),    name="announcement-archive"),
    path("announcements/<int:pk>/pin/",         AnnouncementPinView.as_view(),        name="announcement-pin"),
    path("announcements/<int:pk>/analytics/",   AnnouncementAnalyticsView.as_view(),  name="announcement-analytics"),

    # ── Direct messages ────────────────────────────────────────────
    path("messages/",                  MessageListView.as_view(),            name="message-inbox"),
    path("messages/sent/",             SentMessagesView.as_view(),           name="message-sent"),
    path("messages/unread-count/",     UnreadCountView.as_view(),            name="message-unread-count"),
    path("messages/read-all/",         MessageReadAllView.as_view(),         name="message-read-all"),
    path("messages/stats/",            MessageStatsView.as_view(),           name="message-stats"),
    path("messages/system/",           SystemMessageView.as_view(),          name="message-system"),
    path("messages/broadcast/",        BroadcastDirectMessageView.as_view(), name="message-broadcast"),
    path("messages/<int:pk>/",         MessageDetailView.as_view(),          name="message-detail"),
    path("messages/<int:pk>/read/",    MessageReadView.as_view(),            name="message-read"),
    path("messages/<int:pk>/star/",    MessageStarView.as_view(),            name="message-star"),
    path("messages/<int:pk>/archive/", MessageArchiveView.as_view(),         name="message-archive"),

    # ── Notifications ──────────────────────────────────────────────
    path("notifications/",                 NotificationListView.as_view(),            name="notification-list"),
    path("notifications/stats/",           NotificationStatsView.as_view(),           name="notification-stats"),
    path("notifications/preferences/",     NotificationPreferencesView.as_view(),     name="notification-preferences"),
    path("notifications/read-all/",        NotificationReadAllView.as_view(),         name="notification-read-all"),
    path("notifications/send/",            SendNotificationView.as_view(),            name="notification-send"),
    path("notifications/broadcast/",       SystemBroadcastNotificationView.as_view(), name="notification-broadcast"),
    path("notifications/<int:pk>/",        NotificationDetailView.as_view(),          name="notification-detail"),
    path("notifications/<int:pk>/read/",   NotificationReadView.as_view(),            name="notification-read"),
]
