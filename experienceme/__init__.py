"""
ExperienceMe discovery service.

This package serves the experiences directory (finder, search, detail pages,
business and admin dashboards, favorites and metrics) on top of a hosted
backend-as-a-service. Data, auth and storage all stay on the platform; the
package only composes requests against it and renders the results.
"""
