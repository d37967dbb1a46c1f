"""Tests for Spring Boot generator parameters and seed transforms."""

import asyncio

import pytest
import yaml
from hypothesis import given, strategies as st
from pydantic import ValidationError

from conftest import write_files
from src.sdm.invocation import CommandInvocation
from src.sdm.spring.generate import (
    SpringProjectCreationParameters,
    relocate_package,
    replace_readme_title,
    set_project_element,
    set_team_in_application_yml,
    to_class_stem,
    transform_seed_to_custom_project,
)

SEED_POM = """<?xml version="1.0" encoding="UTF-8"?>
<project>
  <modelVersion>4.0.0</modelVersion>
  <parent>
    <groupId>org.springframework.boot</groupId>
    <artifactId>spring-boot-starter-parent</artifactId>
    <version>2.0.3.RELEASE</version>
  </parent>
  <groupId>com.atomist</groupId>
  <artifactId>spring-rest</artifactId>
  <version>0.1.0-SNAPSHOT</version>
  <name>spring-rest</name>
  <description>Seed for Spring REST services</description>
  <dependencies>
    <dependency>
      <groupId>org.springframework.boot</groupId>
      <artifactId>spring-boot-starter-web</artifactId>
    </dependency>
  </dependencies>
</project>
"""

SEED_APPLICATION = """package com.atomist.springrest;

import org.springframework.boot.SpringApplication;
import org.springframework.boot.autoconfigure.SpringBootApplication;

@SpringBootApplication
public class SpringRestApplication {

    public static void main(String[] args) {
        SpringApplication.run(SpringRestApplication.class, args);
    }
}
"""

SEED_CONTROLLER = """package com.atomist.springrest.web;

import com.atomist.springrest.SpringRestApplication;

public class SpringRestController {
}
"""

SEED_TEST = """package com.atomist.springrest;

public class SpringRestApplicationTests {
}
"""

SEED_README = """# spring-rest

Seed project for Spring Boot REST services.

## Running

mvn spring-boot:run
"""


def run_async(coro):
    return asyncio.run(coro)


def spring_params(**overrides):
    values = {
        "target": {"owner": "zeus-org", "repo": "orders", "description": "Order service"},
        "group_id": "com.zeus",
        "root_package": "com.zeus.orders",
    }
    values.update(overrides)
    return SpringProjectCreationParameters.model_validate(values)


@pytest.fixture
def seed(project):
    write_files(
        project.base_dir,
        {
            "pom.xml": SEED_POM,
            "README.md": SEED_README,
            "src/main/resources/application.yml": "server:\n  port: 8080\n",
            "src/main/java/com/atomist/springrest/SpringRestApplication.java": SEED_APPLICATION,
            "src/main/java/com/atomist/springrest/web/SpringRestController.java": SEED_CONTROLLER,
            "src/test/java/com/atomist/springrest/SpringRestApplicationTests.java": SEED_TEST,
        },
    )
    return project


def invocation_with(settings, message_client, parameters):
    return CommandInvocation(parameters=parameters, configuration=settings, message_client=message_client)


class TestParameters:
    def test_defaults_follow_target(self):
        parameters = spring_params()
        assert parameters.artifact_id == "orders"
        assert parameters.service_class_name == "Orders"
        assert parameters.version == "0.1.0-SNAPSHOT"
        assert parameters.project_description == "Order service"

    def test_explicit_values(self):
        parameters = spring_params(artifact_id="order-api", service_class_name="OrderApi", description="API")
        assert parameters.artifact_id == "order-api"
        assert parameters.service_class_name == "OrderApi"
        assert parameters.project_description == "API"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"root_package": "Com.Zeus"},
            {"root_package": "com..zeus"},
            {"group_id": "com zeus"},
            {"service_class_name": "1Orders"},
            {"artifact_id": "orders/api"},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ValidationError):
            spring_params(**overrides)

    @pytest.mark.parametrize(
        "artifact_id,stem",
        [("acme-service", "AcmeService"), ("orders", "Orders"), ("my_app.v2", "MyAppV2"), ("2fa", "App2fa")],
    )
    def test_class_stem(self, artifact_id, stem):
        assert to_class_stem(artifact_id) == stem

    @given(artifact_id=st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789-_.", min_size=1, max_size=30))
    def test_class_stem_is_a_java_identifier(self, artifact_id):
        stem = to_class_stem(artifact_id)
        assert stem[0].isalpha()
        assert stem.isalnum()


class TestReadme:
    def test_title_and_description_are_replaced(self, seed, settings, message_client):
        run_async(replace_readme_title(seed, invocation_with(settings, message_client, spring_params())))

        content = (seed.base_dir / "README.md").read_text()
        assert content == "# orders\n\nOrder service\n\n## Running\n\nmvn spring-boot:run\n"

    def test_readme_without_sections(self, project, settings, message_client):
        write_files(project.base_dir, {"README.md": "# seed\n"})
        parameters = spring_params(target={"owner": "zeus-org", "repo": "orders"})

        run_async(replace_readme_title(project, invocation_with(settings, message_client, parameters)))

        assert (project.base_dir / "README.md").read_text() == "# orders\n"

    def test_missing_readme_is_ignored(self, project, settings, message_client):
        run_async(replace_readme_title(project, invocation_with(settings, message_client, spring_params())))
        assert not (project.base_dir / "README.md").exists()


class TestApplicationYml:
    def test_team_is_added(self, seed, settings, message_client):
        run_async(set_team_in_application_yml(seed, invocation_with(settings, message_client, spring_params())))

        data = yaml.safe_load((seed.base_dir / "src/main/resources/application.yml").read_text())
        assert data == {"server": {"port": 8080}, "atomist": {"team": "T0ZEUS"}}

    def test_existing_section_is_kept(self, project, settings, message_client):
        write_files(
            project.base_dir,
            {"src/main/resources/application.yml": "atomist:\n  team: OLD\n  token: abc\n"},
        )
        run_async(set_team_in_application_yml(project, invocation_with(settings, message_client, spring_params())))

        data = yaml.safe_load((project.base_dir / "src/main/resources/application.yml").read_text())
        assert data == {"atomist": {"team": "T0ZEUS", "token": "abc"}}

    def test_no_team_configured(self, seed, settings, message_client):
        unconfigured = settings.model_copy(update={"team_id": None})
        before = (seed.base_dir / "src/main/resources/application.yml").read_text()

        run_async(set_team_in_application_yml(seed, invocation_with(unconfigured, message_client, spring_params())))

        assert (seed.base_dir / "src/main/resources/application.yml").read_text() == before

    def test_non_mapping_is_rejected(self, project, settings, message_client):
        write_files(project.base_dir, {"src/main/resources/application.yml": "- a\n- b\n"})
        with pytest.raises(ValueError):
            run_async(
                set_team_in_application_yml(project, invocation_with(settings, message_client, spring_params()))
            )


class TestPom:
    def test_only_project_coordinates_change(self):
        updated = set_project_element(SEED_POM, "groupId", "com.zeus")
        updated = set_project_element(updated, "version", "1.0.0")

        assert "<groupId>com.zeus</groupId>" in updated
        assert updated.count("<groupId>org.springframework.boot</groupId>") == 2
        assert "<version>2.0.3.RELEASE</version>" in updated
        assert "<version>1.0.0</version>" in updated

    def test_missing_element_leaves_pom_unchanged(self):
        assert set_project_element("<project></project>", "description", "x") == "<project></project>"

    def test_values_are_escaped(self):
        updated = set_project_element(SEED_POM, "description", "Orders & billing")
        assert "<description>Orders &amp; billing</description>" in updated


class TestSeedTransform:
    def test_full_transform(self, seed, settings, message_client):
        run_async(
            transform_seed_to_custom_project(seed, invocation_with(settings, message_client, spring_params()))
        )
        base = seed.base_dir

        pom = (base / "pom.xml").read_text()
        assert "<groupId>com.zeus</groupId>" in pom
        assert "<artifactId>orders</artifactId>" in pom
        assert "<name>orders</name>" in pom
        assert "<description>Order service</description>" in pom
        assert "<artifactId>spring-boot-starter-parent</artifactId>" in pom

        application = base / "src/main/java/com/zeus/orders/OrdersApplication.java"
        assert application.exists()
        content = application.read_text()
        assert content.startswith("package com.zeus.orders;")
        assert "public class OrdersApplication" in content
        assert "SpringApplication.run(OrdersApplication.class, args)" in content
        assert "import org.springframework.boot.SpringApplication;" in content

        controller = (base / "src/main/java/com/zeus/orders/web/OrdersController.java").read_text()
        assert "package com.zeus.orders.web;" in controller
        assert "import com.zeus.orders.OrdersApplication;" in controller

        assert (base / "src/test/java/com/zeus/orders/OrdersApplicationTests.java").exists()
        assert not (base / "src/main/java/com/atomist").exists()
        assert not (base / "src/test/java/com/atomist").exists()

    def test_seed_without_application_class_only_updates_pom(self, project, settings, message_client):
        write_files(project.base_dir, {"pom.xml": SEED_POM})
        run_async(
            transform_seed_to_custom_project(project, invocation_with(settings, message_client, spring_params()))
        )
        assert "<artifactId>orders</artifactId>" in (project.base_dir / "pom.xml").read_text()

    def test_same_package_and_class_are_left_alone(self, seed, settings, message_client):
        parameters = spring_params(root_package="com.atomist.springrest", service_class_name="SpringRest")
        run_async(transform_seed_to_custom_project(seed, invocation_with(settings, message_client, parameters)))

        assert (seed.base_dir / "src/main/java/com/atomist/springrest/SpringRestApplication.java").exists()


class TestRelocatePackage:
    def test_nested_packages_leave_no_empty_directories(self, project):
        write_files(
            project.base_dir,
            {
                "src/main/java/com/old/App.java": "package com.old;\n\nclass App {}\n",
                "src/main/java/com/old/web/Ctl.java": "package com.old.web;\n\nimport com.old.App;\n",
            },
        )

        run_async(relocate_package(project, "com.old", "com.neu"))

        java = project.base_dir / "src/main/java"
        assert not (java / "com/old").exists()
        assert (java / "com/neu/App.java").read_text().startswith("package com.neu;")
        assert "import com.neu.App;" in (java / "com/neu/web/Ctl.java").read_text()

    def test_shared_parent_is_kept(self, project):
        write_files(
            project.base_dir,
            {
                "src/main/java/com/old/App.java": "package com.old;\n",
                "src/main/java/com/shared/Util.java": "package com.shared;\n",
            },
        )

        run_async(relocate_package(project, "com.old", "org.neu"))

        java = project.base_dir / "src/main/java"
        assert not (java / "com/old").exists()
        assert (java / "com/shared/Util.java").exists()
        assert (java / "org/neu/App.java").exists()
