# tasks/urls.py
from django.urls import path

from . import views

urlpatterns = [
    # ---------- Home ----------
    path("", views.home, name="home"),

    # ---------- User ----------
    path("User/SignUp", views.sign_up, name="sign_up"),
    path("User/SignIn", views.sign_in, name="sign_in"),
    path("User/Logout", views.logout_view, name="logout"),
    path("User/ChangePassword", views.change_password, name="change_password"),
    path("User/Profile", views.profile, name="profile"),

    # ---------- Tasks ----------
    path("Tasks/Index", views.task_index, name="task_index"),
    path("Tasks/Filter", views.task_filter, name="task_filter"),
    path("Tasks/Create", views.task_create, name="task_create"),
    path("Tasks/Edit/<int:task_id>", views.task_edit, name="task_edit"),
    path("Tasks/Details/<int:task_id>", views.task_details, name="task_details"),
    path("Tasks/Delete/<int:task_id>", views.task_delete, name="task_delete"),
    path("Tasks/Profile", views.profile, name="task_profile"),

    # ---------- Categories ----------
    path("Category/Index", views.category_index, name="category_index"),
    path("Category/Create", views.category_create, name="category_create"),
]
