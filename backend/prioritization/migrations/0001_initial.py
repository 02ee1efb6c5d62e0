from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('workgroups', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='EligibilitySet',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('version', models.PositiveBigIntegerField(default=0, help_text='Bumped on every membership change; doubles as the optimistic concurrency token.', verbose_name='version')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('workgroup', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='eligibility_set', to='workgroups.workgroup', verbose_name='workgroup')),
            ],
            options={
                'verbose_name': 'Eligibility Set',
                'verbose_name_plural': 'Eligibility Sets',
            },
        ),
        migrations.CreateModel(
            name='EligibleItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('item_id', models.CharField(max_length=64, verbose_name='item id')),
                ('item_created_at', models.DateTimeField(verbose_name='item created at')),
                ('added_at', models.DateTimeField(auto_now_add=True, verbose_name='added at')),
                ('eligibility_set', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='prioritization.eligibilityset', verbose_name='eligibility set')),
            ],
            options={
                'verbose_name': 'Eligible Item',
                'verbose_name_plural': 'Eligible Items',
            },
        ),
        migrations.CreateModel(
            name='RankingSnapshot',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('ordered_ids', models.JSONField(default=list, help_text='Most preferred first. Ids that left eligibility are ignored on read.', verbose_name='ordered item ids')),
                ('submitted_at', models.DateTimeField(verbose_name='submitted at')),
                ('eligibility_version', models.PositiveBigIntegerField(help_text='EligibilitySet.version in effect when the ordering was submitted.', verbose_name='eligibility version')),
                ('stale_since', models.DateTimeField(blank=True, help_text='First time the ordering was observed to miss an eligible item.', null=True, verbose_name='stale since')),
                ('row_version', models.PositiveIntegerField(default=1, help_text='Optimistic concurrency token, bumped on every replacement.', verbose_name='row version')),
                ('last_stale_reminder_sent_at', models.DateTimeField(blank=True, null=True)),
                ('last_grace_period_ended_sent_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('member', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='ranking_snapshots', to=settings.AUTH_USER_MODEL, verbose_name='member')),
                ('workgroup', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='ranking_snapshots', to='workgroups.workgroup', verbose_name='workgroup')),
            ],
            options={
                'verbose_name': 'Ranking Snapshot',
                'verbose_name_plural': 'Ranking Snapshots',
                'ordering': ['workgroup_id', 'member_id'],
            },
        ),
        migrations.AddConstraint(
            model_name='eligibleitem',
            constraint=models.UniqueConstraint(fields=('eligibility_set', 'item_id'), name='unique_eligible_item'),
        ),
        migrations.AddConstraint(
            model_name='rankingsnapshot',
            constraint=models.UniqueConstraint(fields=('member', 'workgroup'), name='unique_member_workgroup_ranking'),
        ),
    ]
